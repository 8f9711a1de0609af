from django.urls import path

from apps.reports.views import DonationReportView, DonorRankingView, InstallmentReportView, ZakatReportView

urlpatterns = [
    path("reports/donations/", DonationReportView.as_view(), name="report-donations"),
    path("reports/installments/", InstallmentReportView.as_view(), name="report-installments"),
    path("reports/donors/ranking/", DonorRankingView.as_view(), name="report-donor-ranking"),
    path("reports/zakat/", ZakatReportView.as_view(), name="report-zakat"),
]
