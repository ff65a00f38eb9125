from django.urls import path

from . import views

app_name = "ledger"

urlpatterns = [
    path("trial-balance/", views.trial_balance_view, name="trial-balance"),
    path("profit-and-loss/", views.profit_and_loss_view, name="profit-and-loss"),
    path("balance-sheet/", views.balance_sheet_view, name="balance-sheet"),
    path("accounts/<int:account_id>/balance/", views.account_balance_view, name="account-balance"),
    path("accounts/<int:account_id>/ledger/", views.general_ledger_view, name="general-ledger"),
    path("accounts/<int:account_id>/unreconciled/", views.unreconciled_lines_view, name="unreconciled-lines"),
    path("journal-entries/", views.journal_entries_view, name="journal-entries"),
    path("journal-entries/<int:entry_id>/", views.journal_entry_detail_view, name="journal-entry-detail"),
    path("journal-entries/<int:entry_id>/reverse/", views.reverse_journal_entry_view, name="reverse-journal-entry"),
    path("months/close/", views.close_month_view, name="close-month"),
    path("reconcile/", views.reconcile_view, name="reconcile"),
]
