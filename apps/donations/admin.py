from django.contrib import admin

from apps.donations.models import Donation, DonationPayment


class DonationPaymentInline(admin.TabularInline):
    model = DonationPayment
    extra = 0
    readonly_fields = ("amount", "method", "transaction_ref", "installment", "paid_at", "recorded_by")
    can_delete = False


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ("code", "donor", "donation_type", "total_amount", "amount_paid", "status", "created_at")
    list_filter = ("status", "donation_type", "payment_mode", "allocation_category")
    search_fields = ("code", "donor__code", "donor__full_name")
    readonly_fields = ("code", "amount_paid", "pending_amount", "status", "completed_at", "cancelled_at")
    inlines = [DonationPaymentInline]
