"""
Cases app URL configuration.

All routes are registered under the ``/api/cases/`` prefix.

Route Hierarchy
---------------
  POST /api/cases/                          → create + allocate
  POST /api/cases/{id}/reassign/            → manual reassignment
  GET  /api/cases/{id}/allocation-history/  → audit trail, oldest first
  GET  /api/cases/next-receiver/?case_type= → rotation preview
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
