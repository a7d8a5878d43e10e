# Automatically load all models so metadata knows them
from app.models.user_model import User
from app.models.collateral_model import Collateral
from app.models.loan_model import Loan
from app.models.transaction_model import LoanTransaction
