from django.apps import AppConfig


class TourOptimizerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tour_optimizer'
    verbose_name = 'Tour Optimization Service'
