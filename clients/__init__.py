# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_valkey_url,
    get_email_config,
    get_stripe_config,
    get_twilio_config,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.sms_client import TwilioSmsClient, SmsGatewayError
from clients.payment_gateway import StripePaymentGateway, PaymentGatewayError
