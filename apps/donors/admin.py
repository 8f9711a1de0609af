from django.contrib import admin

from apps.donors.models import Donor


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ("code", "full_name", "donor_type", "phone", "status", "total_donations", "total_amount")
    list_filter = ("status", "donor_type")
    search_fields = ("code", "full_name", "phone", "email")
    readonly_fields = ("code", "phone_normalized", "total_donations", "total_amount", "last_donation_at")
