import os
import django

# Configure Django settings before any tests are run
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tour_optimizer.tests.test_settings')
django.setup()
