from mangum import Mangum

from credit_ledger.api import app

handler = Mangum(app, api_gateway_base_path="/api")
