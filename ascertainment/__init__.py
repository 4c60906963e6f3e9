from .epiparam import OutcomeDelay, cases_known_outcome
from .errors import AlignmentError, ConsistencyError, ConvergenceWarning, NumericalInstabilityError
from .preprocessing import preprocess_data, PreprocessedData
from .models import reporting_rate_model, run_model
