"""
API Endpoint URL Constants

This module defines the URL paths used by the GO BUS sub-applications.

These URLs are relative to the mount point of the sub-application
(`/api/owner`, `/api/driver`, `/api/customer`, `/api/ticket`).
"""

# -------------------------------
# Authentication & Accounts
# -------------------------------
URL_AUTH = "/auth"
URL_ACCOUNT = "/account"
URL_ACCOUNT_COMPANY = "/account/company"
URL_ACCOUNT_PASSWORD = "/account/password"

# -------------------------------
# Owner
# -------------------------------
URL_OWNER_DASHBOARD = "/dashboard"
URL_BUS = "/bus"
URL_BUS_ITEM = "/bus/{bus_id}"
URL_BUS_BANK_ACCOUNT = "/bus/{bus_id}/bank_account"
URL_TRIP = "/trip"
URL_TRIP_ITEM = "/trip/{trip_id}"
URL_TRIP_STOP = "/trip/{trip_id}/stop"
URL_TRIP_STOP_BULK = "/trip/{trip_id}/stop/bulk"
URL_TRIP_STOP_ITEM = "/trip/{trip_id}/stop/{stop_id}"
URL_DRIVERS = "/drivers"
URL_DRIVERS_NEXT = "/drivers/next"
URL_DRIVERS_UNASSIGNED_BUS = "/drivers/unassigned_bus"
URL_DRIVER_CREDENTIALS = "/drivers/{driver_id}/credentials"
URL_BANK_ACCOUNT = "/bank_account"
URL_BANK_ACCOUNT_DEFAULT = "/bank_account/default"
URL_BANK_ACCOUNT_SET_DEFAULT = "/bank_account/{account_id}/default"

# -------------------------------
# Driver
# -------------------------------
URL_DRIVER_DASHBOARD = "/dashboard"
URL_TRIP_STATS = "/trip-stats"

# -------------------------------
# Ticket
# -------------------------------
URL_TICKET_VERIFY = "/verify"
URL_TICKET = "/ticket"
URL_TICKET_STATS = "/ticket/stats"
URL_TICKET_ITEM = "/ticket/{ticket_id}"
