"""
Centralized constants for delivery scheduling and quote negotiation.

The buffers and thresholds below were tuned against the provider's behaviour;
change them here instead of scattering literals across the calculator and negotiator.
"""

# Added to "now" before any hours comparison (clock skew, request latency).
SAFETY_BUFFER_MINUTES = 15

# Added to the provider's "earliest possible" time before the single retry.
RETRY_BUFFER_SECONDS = 5

# Immediate orders need 30 min preparation + 60 min delivery before close.
IMMEDIATE_DELIVERY_MIN_MINUTES = 90

# Preparation time domain (minutes)
DEFAULT_PREPARATION_MINUTES = 60
MIN_PREPARATION_MINUTES = 30
MAX_PREPARATION_MINUTES = 180

# Manual scheduling UI: slot spacing and the last slot's distance from close
SLOT_INTERVAL_MINUTES = 30
SLOT_CLOSE_MARGIN_MINUTES = 60
DEFAULT_DAYS_AHEAD = 7

# Provider rejection marker that makes a request retryable (once)
INVALID_SCHEDULED_DROPOFF_TIME = "INVALID_SCHEDULED_DROPOFF_TIME"

# In-memory API call log keeps only the newest N entries
API_LOG_MAX_ENTRIES = 100
API_LOG_LIST_LIMIT = 100

# Log entry types (one per provider endpoint)
LOG_TYPE_AVAILABLE_VENUES = "available-venues"
LOG_TYPE_SHIPMENT_PROMISE = "shipment-promise"
LOG_TYPE_CREATE_DELIVERY = "create-delivery"
LOG_TYPE_LIST_DELIVERIES = "list-deliveries"
LOG_TYPE_CANCEL_DELIVERY = "cancel-delivery"
