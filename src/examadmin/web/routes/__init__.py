"""Route handlers for the Web API."""

from examadmin.web.routes.analytics import router as analytics_router
from examadmin.web.routes.auth import router as auth_router
from examadmin.web.routes.chapters import router as chapters_router
from examadmin.web.routes.class_levels import router as class_levels_router
from examadmin.web.routes.exam_structures import router as exam_structures_router
from examadmin.web.routes.exams import router as exams_router
from examadmin.web.routes.health import router as health_router
from examadmin.web.routes.question_import import router as import_router
from examadmin.web.routes.profile import router as profile_router
from examadmin.web.routes.questions import router as questions_router
from examadmin.web.routes.scheduled_exams import router as scheduled_exams_router
from examadmin.web.routes.schools import router as schools_router
from examadmin.web.routes.subjects import router as subjects_router
from examadmin.web.routes.users import router as users_router

__all__ = [
    "analytics_router",
    "auth_router",
    "chapters_router",
    "class_levels_router",
    "exam_structures_router",
    "exams_router",
    "health_router",
    "import_router",
    "profile_router",
    "questions_router",
    "scheduled_exams_router",
    "schools_router",
    "subjects_router",
    "users_router",
]
