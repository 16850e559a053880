from django.apps import AppConfig


class SpinConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "spin"
    verbose_name = "Wheel Spin"
