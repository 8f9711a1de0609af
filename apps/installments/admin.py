from django.contrib import admin

from apps.installments.models import Installment


@admin.register(Installment)
class InstallmentAdmin(admin.ModelAdmin):
    list_display = ("code", "donation", "installment_number", "total_installments", "amount", "due_date", "status")
    list_filter = ("status", "frequency")
    search_fields = ("code", "donation__code", "donor__code", "transaction_id", "receipt_id")
    readonly_fields = ("code", "grace_end_date", "paid_date", "paid_by")
