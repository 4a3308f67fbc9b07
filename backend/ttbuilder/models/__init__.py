from ttbuilder.models.activity_log import ActivityLog  # noqa: F401
from ttbuilder.models.timetable import TimetableDocument  # noqa: F401
