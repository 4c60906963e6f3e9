from .models import reporting_rate_model
from .model_run_utils import run_model
