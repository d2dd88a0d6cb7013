from django.contrib import admin

from construction.models import (
    BudgetAllocation,
    ConstructionCategory,
    ConstructionProject,
    PaymentRequest,
    ProjectWorkItem,
)


class BudgetAllocationInline(admin.TabularInline):
    model = BudgetAllocation
    extra = 0
    fields = ("category", "planned_amount", "notes")


@admin.register(ConstructionCategory)
class ConstructionCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "icon")
    prepopulated_fields = {"slug": ("name",)}
    search_fields = ("name", "slug")


@admin.register(ConstructionProject)
class ConstructionProjectAdmin(admin.ModelAdmin):
    list_display = ("title", "branch", "status", "budget", "actual_cost", "progress_percent")
    list_filter = ("status", "branch")
    search_fields = ("title", "branch__name")
    list_select_related = ("branch",)
    inlines = [BudgetAllocationInline]


@admin.register(ProjectWorkItem)
class ProjectWorkItemAdmin(admin.ModelAdmin):
    list_display = ("name", "project", "category", "status", "cost_estimate", "actual_cost")
    list_filter = ("status", "category")
    search_fields = ("name", "project__title")
    list_select_related = ("project", "category")


@admin.register(PaymentRequest)
class PaymentRequestAdmin(admin.ModelAdmin):
    list_display = ("request_number", "project", "category", "request_type", "amount", "status", "paid_at")
    list_filter = ("status", "request_type")
    search_fields = ("request_number", "beneficiary_name", "project__title")
    list_select_related = ("project", "category")
