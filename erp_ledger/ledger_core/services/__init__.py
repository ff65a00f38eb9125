# Ledger services: the only code paths that write ledger rows.
#   posting        post / reverse / post_idempotent
#   periods        assert_open / close_month
#   references     ReferenceBinding / bind
#   balances       account_balance / trial_balance / general_ledger
#   reconciliation import_statement_lines / reconcile / unreconcile
#   chart          resolve_account / seed_default_chart / deactivate_account
from .posting import post, post_idempotent, reverse  # noqa: F401
from .periods import assert_open, close_month, current_open_from  # noqa: F401
from .references import ReferenceBinding  # noqa: F401
