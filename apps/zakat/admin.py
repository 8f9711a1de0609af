from django.contrib import admin

from apps.zakat.models import ZakatTransaction


@admin.register(ZakatTransaction)
class ZakatTransactionAdmin(admin.ModelAdmin):
    list_display = ("type", "amount", "donor_name", "recipient_name", "payment_method", "payment_date", "status")
    list_filter = ("type", "status", "payment_method")
    search_fields = ("donor_name", "recipient_name", "payment_reference")
