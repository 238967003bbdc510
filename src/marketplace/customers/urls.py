"""Customer URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from marketplace.customers.views import PhoneVerificationViewSet

router = DefaultRouter(trailing_slash=True)
router.register("customers/me/phone", PhoneVerificationViewSet, basename="phone-verification")

urlpatterns = router.urls
