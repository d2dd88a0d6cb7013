from django.contrib import admin

from targets.models import BranchMonthlyTarget, CashierSalesJournal


@admin.register(BranchMonthlyTarget)
class BranchMonthlyTargetAdmin(admin.ModelAdmin):
    list_display = ("branch", "year_month", "target_amount", "status", "updated_at")
    list_filter = ("status", "year_month")
    search_fields = ("branch__name", "branch__code")
    list_select_related = ("branch",)


@admin.register(CashierSalesJournal)
class CashierSalesJournalAdmin(admin.ModelAdmin):
    list_display = ("branch", "journal_date", "cashier_name", "total_sales", "status")
    list_filter = ("status", "branch")
    date_hierarchy = "journal_date"
    search_fields = ("cashier_name", "branch__name")
    list_select_related = ("branch",)
