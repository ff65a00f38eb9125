import logging

from django.db import transaction

from ..exceptions import AccountInUseError, AccountNotFound
from ..models import Account, AccountType, normal_side_for
from .audit_helper import log_action
from .tenancy import as_pk, fetch_scoped, resolve_company

logger = logging.getLogger(__name__)


# Default chart seeded for every new company.
# (code, name, type, subtype)
DEFAULT_CHART = [
    # Assets
    ("1000", "Cash", AccountType.ASSET, "asset_cash"),
    ("1010", "Petty Cash", AccountType.ASSET, "asset_cash"),
    ("1050", "Bank Account", AccountType.ASSET, "asset_cash"),
    ("1100", "Accounts Receivable", AccountType.ASSET, "asset_receivable"),
    ("1200", "Inventory", AccountType.ASSET, "asset_inventory"),
    ("1300", "Prepaid Expenses", AccountType.ASSET, "asset_prepaid"),
    ("1500", "Property, Plant & Equipment", AccountType.ASSET, "asset_fixed"),
    ("1590", "Accumulated Depreciation", AccountType.ASSET, "contra_asset_depreciation"),
    # Liabilities
    ("2000", "Accounts Payable", AccountType.LIABILITY, "liability_payable"),
    ("2100", "VAT Payable", AccountType.LIABILITY, "liability_tax_payable"),
    ("2200", "Salaries Payable", AccountType.LIABILITY, "liability_salaries_payable"),
    ("2250", "Income Tax Payable", AccountType.LIABILITY, "liability_tax_payable"),
    ("2300", "Unearned Revenue", AccountType.LIABILITY, "liability_unearned_revenue"),
    ("2500", "Long-Term Debt", AccountType.LIABILITY, "liability_long_term_debt"),
    # Equity
    ("3000", "Owner's Capital", AccountType.EQUITY, "equity_capital"),
    ("3100", "Retained Earnings", AccountType.EQUITY, "equity_retained_earnings"),
    ("3200", "Opening Balance Equity", AccountType.EQUITY, "equity_opening_balance"),
    ("3300", "Dividends", AccountType.EQUITY, "equity_dividends"),
    # Revenue
    ("4000", "Sales Revenue", AccountType.REVENUE, "revenue_sales"),
    ("4100", "Service Revenue", AccountType.REVENUE, "revenue_services"),
    ("4900", "Other Income", AccountType.REVENUE, "revenue_other"),
    # Expenses
    ("5000", "Cost of Goods Sold", AccountType.EXPENSE, "expense_cogs"),
    ("5050", "Inventory Adjustments", AccountType.EXPENSE, "expense_inventory_adjustment"),
    ("6000", "Salaries Expense", AccountType.EXPENSE, "expense_salaries"),
    ("6100", "Rent Expense", AccountType.EXPENSE, "expense_rent"),
    ("6200", "Utilities Expense", AccountType.EXPENSE, "expense_utilities"),
    ("6300", "Depreciation Expense", AccountType.EXPENSE, "expense_depreciation"),
    ("6400", "Office Supplies", AccountType.EXPENSE, "expense_office"),
    ("6500", "Bank Charges", AccountType.EXPENSE, "expense_bank_charges"),
    ("6900", "General Expenses", AccountType.EXPENSE, "expense_general"),
]


def resolve_account(company, account):
    """
    Return the company's Account for an Account instance or primary key.
    Another company's account → CrossTenantViolation,
    unknown id → AccountNotFound.
    """
    company = resolve_company(company)
    account_id = as_pk(account, "Account")
    return fetch_scoped(Account, company, [account_id], "Account", not_found=AccountNotFound)[account_id]


def normal_side(account):
    """'debit' for assets and expenses, 'credit' for the rest."""
    return normal_side_for(account.ac_type)


def deactivate_account(company, account, user=None):
    """Stop new postings to an account. History stays untouched."""
    account = resolve_account(company, account)
    if account.is_active:
        account.is_active = False
        account.save(update_fields=["is_active"])
        log_action(action="deactivate", instance=account, user=user,
                   changes={"code": account.code})
        logger.info("Account %s deactivated for company %s", account.code, account.company_id)
    return account


def delete_account(company, account, user=None):
    """Only accounts that were never posted to can be removed."""
    account = resolve_account(company, account)
    if account.has_lines():
        raise AccountInUseError(
            f"Account {account.code} has ledger history; deactivate it instead"
        )
    code = account.code
    account.delete()
    logger.info("Account %s deleted for company %s", code, company)


def seed_default_chart(company):
    """
    Create any missing default accounts for a company.
    Safe to run repeatedly; existing codes are left alone.
    Returns the number of accounts created.
    """
    company = resolve_company(company)
    created = 0
    with transaction.atomic():
        for code, name, ac_type, subtype in DEFAULT_CHART:
            _, was_created = Account.objects.get_or_create(
                company=company,
                code=code,
                defaults={
                    "name": name,
                    "ac_type": ac_type,
                    "subtype": subtype,
                    "is_system": True,
                },
            )
            created += int(was_created)
    logger.info("Seeded %s default accounts for company %s", created, company.pk)
    return created
