from django.utils.deprecation import MiddlewareMixin
from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach a .company attribute (the tenant) to the request, based on the logged-in user
    def process_request(self, request):
        request.company = None
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):  # Unauthenticated users get no tenant
            return

        # Default company fallback: if the user didn't choose a company
        company_id = request.session.get("active_company_id") or user.default_company_id
        if not company_id:
            return

        # ensure security: user must be an active member of that company,
        # so a tampered session can't "jump" into another company's books
        request.company = Company.objects.filter(
            id=company_id,
            memberships__user=user,
            memberships__is_active=True,
        ).first()
