# API routes
from activation_mailer.api.routes import health
from activation_mailer.api.routes import webhooks_shopify
from activation_mailer.api.routes import flow_actions

__all__ = ["health", "webhooks_shopify", "flow_actions"]
