from django.urls import path

from . import views


app_name = "spin"

urlpatterns = [
    path("spin/", views.spin, name="spin"),
    path("admin/reset-prizes/", views.reset_prizes, name="reset_prizes"),
    path("admin/stats/", views.prize_stats, name="prize_stats"),
    path("customer/<str:phone>/", views.customer_status, name="customer_status"),
    path("api/prizes/available/", views.available_prizes, name="available_prizes"),
    path("health/", views.health, name="health"),
]
