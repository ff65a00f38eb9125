import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
import ledger_core.managers
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        # ---------- User (default_company added once Company exists) ----------
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(
                    default=False,
                    help_text="Designates that this user has all permissions without explicitly assigning them.",
                    verbose_name="superuser status",
                )),
                ("username", models.CharField(
                    error_messages={"unique": "A user with that username already exists."},
                    help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.",
                    max_length=150,
                    unique=True,
                    validators=[django.contrib.auth.validators.UnicodeUsernameValidator()],
                    verbose_name="username",
                )),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(
                    default=False,
                    help_text="Designates whether the user can log into this admin site.",
                    verbose_name="staff status",
                )),
                ("is_active", models.BooleanField(
                    default=True,
                    help_text="Designates whether this user should be treated as active. "
                              "Unselect this instead of deleting accounts.",
                    verbose_name="active",
                )),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("groups", models.ManyToManyField(
                    blank=True,
                    help_text="The groups this user belongs to. A user will get all permissions "
                              "granted to each of their groups.",
                    related_name="user_set",
                    related_query_name="user",
                    to="auth.group",
                    verbose_name="groups",
                )),
                ("user_permissions", models.ManyToManyField(
                    blank=True,
                    help_text="Specific permissions for this user.",
                    related_name="user_set",
                    related_query_name="user",
                    to="auth.permission",
                    verbose_name="user permissions",
                )),
            ],
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- Company ----------
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("owner", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="owned_companies",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "verbose_name_plural": "companies",
            },
        ),
        migrations.AddField(
            model_name="user",
            name="default_company",
            field=models.ForeignKey(
                blank=True, null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="default_users",
                to="ledger_core.company",
            ),
        ),
        migrations.AddIndex(
            model_name="user",
            index=models.Index(fields=["default_company"], name="user_default_company_idx"),
        ),
        # ---------- EntityMembership ----------
        migrations.CreateModel(
            name="EntityMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(
                    choices=[("owner", "Owner"), ("admin", "Admin"), ("accountant", "Accountant"), ("viewer", "Viewer")],
                    default="viewer",
                    max_length=20,
                )),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="memberships",
                    to="ledger_core.company",
                )),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="memberships",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "indexes": [models.Index(fields=["company", "user"], name="membership_company_user_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "company"), name="uq_user_company_membership"),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- Account ----------
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("ac_type", models.CharField(
                    choices=[
                        ("asset", "Asset"),
                        ("liability", "Liability"),
                        ("equity", "Equity"),
                        ("revenue", "Revenue"),
                        ("expense", "Expense"),
                    ],
                    max_length=10,
                )),
                ("subtype", models.CharField(blank=True, default="", max_length=64)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("is_system", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
            ],
            options={
                "ordering": ("company", "code"),
                "indexes": [
                    models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
                    models.Index(fields=["company", "subtype"], name="acct_company_subtype_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_account_code"),
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_account_name"),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.AccountManager()),
            ],
        ),
        # ---------- FinancialMonth ----------
        migrations.CreateModel(
            name="FinancialMonth",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveSmallIntegerField()),
                ("month", models.PositiveSmallIntegerField()),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("open", "Open"), ("closed", "Closed")], default="open", max_length=10,
                )),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="closed_months",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
            ],
            options={
                "ordering": ("company", "year", "month"),
                "indexes": [
                    models.Index(fields=["company", "start_date"], name="fm_company_start_idx"),
                    models.Index(fields=["company", "status"], name="fm_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "year", "month"), name="uq_company_financial_month"),
                    models.CheckConstraint(
                        condition=models.Q(("month__gte", 1), ("month__lte", 12)),
                        name="financial_month_valid_month",
                    ),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- JournalEntry ----------
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("description", models.TextField(blank=True, default="")),
                ("source", models.CharField(max_length=100)),
                ("total", models.DecimalField(decimal_places=2, max_digits=18)),
                ("status", models.CharField(choices=[("posted", "Posted")], default="posted", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("reference_kind", models.CharField(
                    choices=[
                        ("invoice", "Invoice"),
                        ("sales_order", "Sales order"),
                        ("purchase_order", "Purchase order"),
                        ("payslip", "Payslip"),
                        ("stock_adjustment", "Stock adjustment"),
                        ("expense", "Expense"),
                        ("supplier_bill", "Supplier bill"),
                        ("bill_payment", "Bill payment"),
                        ("customer_payment", "Customer payment"),
                        ("journal_entry", "Journal entry"),
                        ("none", "None"),
                    ],
                    default="none",
                    max_length=32,
                )),
                ("reference_id", models.BigIntegerField(blank=True, null=True)),
                ("reference_qualifier", models.CharField(blank=True, default="", max_length=64)),
                ("reference_exclusive", models.BooleanField(default=False)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL,
                )),
                ("reversal_of", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="reversals",
                    to="ledger_core.journalentry",
                )),
            ],
            options={
                "verbose_name_plural": "journal entries",
                "indexes": [
                    models.Index(fields=["company", "date"], name="je_company_date_idx"),
                    models.Index(fields=["company", "source"], name="je_company_source_idx"),
                    models.Index(fields=["company", "reference_kind", "reference_id"], name="je_company_reference_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("reference_exclusive", True)),
                        fields=("company", "reference_kind", "reference_id", "reference_qualifier"),
                        name="uq_je_exclusive_reference",
                    ),
                    models.CheckConstraint(condition=models.Q(("total__gte", 0)), name="je_non_negative_total"),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- JournalLine ----------
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("debit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("reconciled_at", models.DateTimeField(blank=True, null=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.account",
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
                ("journal", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="lines",
                    to="ledger_core.journalentry",
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "account"], name="jl_company_account_idx"),
                    models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
                    models.Index(fields=["company", "account", "is_reconciled"], name="jl_company_acct_recon_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit__gte", 0), ("credit__gte", 0)),
                        name="jl_non_negative_amounts",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("debit", 0), ("credit__gt", 0)),
                            models.Q(("credit", 0), ("debit__gt", 0)),
                            _connector="OR",
                        ),
                        name="jl_debit_xor_credit",
                    ),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.JournalLineManager()),
            ],
        ),
        # ---------- MonthCloseSnapshot ----------
        migrations.CreateModel(
            name="MonthCloseSnapshot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_count", models.PositiveIntegerField(default=0)),
                ("total_debit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("total_credit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("account_movements", models.JSONField(default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
                ("financial_month", models.OneToOneField(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="close_snapshot",
                    to="ledger_core.financialmonth",
                )),
            ],
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- BankStatementLine ----------
        migrations.CreateModel(
            name="BankStatementLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("debit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("is_matched", models.BooleanField(default=False)),
                ("matched_at", models.DateTimeField(blank=True, null=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.account",
                )),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    to="ledger_core.company",
                )),
                ("journal_line", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="bank_statement_lines",
                    to="ledger_core.journalline",
                )),
                ("matched_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="matched_statement_lines",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ("date", "id"),
                "indexes": [
                    models.Index(fields=["company", "account", "is_matched"], name="bsl_company_acct_match_idx"),
                    models.Index(fields=["company", "date"], name="bsl_company_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit__gte", 0), ("credit__gte", 0)),
                        name="bsl_non_negative_amounts",
                    ),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
        # ---------- AuditLog ----------
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to="ledger_core.company",
                )),
                ("user", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "user"], name="audit_company_user_idx"),
                    models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
                ],
            },
            managers=[
                ("objects", ledger_core.managers.TenantManager()),
            ],
        ),
    ]
