from fastapi.security import HTTPBearer

# Define HTTP Bearer authentication schemes for different user roles
bearer_owner = HTTPBearer(scheme_name="Owner HTTPBearer")
bearer_driver = HTTPBearer(scheme_name="Driver HTTPBearer")
bearer_customer = HTTPBearer(scheme_name="Customer HTTPBearer")
