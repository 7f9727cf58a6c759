from django.contrib.auth.mixins import LoginRequiredMixin
from django.http import JsonResponse

from users.context import CallerContext


class TenantRequiredMixin(LoginRequiredMixin):
    """Restrict JSON endpoints to authenticated users that belong to a tenant."""

    raise_exception = True

    def dispatch(self, request, *args, **kwargs):
        user = getattr(request, "user", None)
        if user and user.is_authenticated and not getattr(user, "tenant_id", None):
            return JsonResponse(
                {
                    "success": False,
                    "kind": "forbidden",
                    "error": "El usuario no pertenece a ninguna empresa.",
                },
                status=403,
            )
        return super().dispatch(request, *args, **kwargs)

    def get_caller_context(self) -> CallerContext:
        return CallerContext.from_user(self.request.user)
