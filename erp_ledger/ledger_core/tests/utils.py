from decimal import Decimal

from ..models import Account, Company
from ..services.chart import seed_default_chart


def make_company(name="Test Co", **kwargs):
    """Company with the default chart of accounts seeded."""
    company = Company.objects.create(name=name, **kwargs)
    seed_default_chart(company)
    return company


def accounts_by_code(company):
    return {a.code: a for a in Account.objects.for_company(company)}


def dr(account, amount, description=""):
    return {"account": account, "debit": Decimal(amount), "description": description}


def cr(account, amount, description=""):
    return {"account": account, "credit": Decimal(amount), "description": description}
