from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from gobus.api import (
    owner_token,
    owner_account,
    dashboard,
    bus,
    trip,
    trip_stop,
    driver,
    bank_account,
    driver_token,
    driver_dashboard,
    customer_token,
    customer_account,
    ticket,
)
from gobus.src.enums import AppID
from gobus.src.exceptions import validationErrorHandler


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_owner = FastAPI(title="Owner APP")
app_driver = FastAPI(title="Driver APP")
app_customer = FastAPI(title="Customer APP")
app_ticket = FastAPI(title="Ticket APP")

# Tag each app with its AppID, ticket validation is done by drivers
app_owner.state.id = AppID.OWNER
app_driver.state.id = AppID.DRIVER
app_customer.state.id = AppID.CUSTOMER
app_ticket.state.id = AppID.DRIVER

for subApp in (app_owner, app_driver, app_customer, app_ticket):
    subApp.add_exception_handler(RequestValidationError, validationErrorHandler)


# ------------------------------------------------------
# Owner routers
# ------------------------------------------------------
app_owner.include_router(owner_token.route_owner)
app_owner.include_router(owner_account.route_owner)
app_owner.include_router(dashboard.route_owner)
app_owner.include_router(bus.route_owner)
app_owner.include_router(trip.route_owner)
app_owner.include_router(trip_stop.route_owner)
app_owner.include_router(driver.route_owner)
app_owner.include_router(bank_account.route_owner)


# ------------------------------------------------------
# Driver routers
# ------------------------------------------------------
app_driver.include_router(driver_token.route_driver)
app_driver.include_router(driver_dashboard.route_driver)


# ------------------------------------------------------
# Customer routers
# ------------------------------------------------------
app_customer.include_router(customer_token.route_customer)
app_customer.include_router(customer_account.route_customer)
app_customer.include_router(bus.route_customer)
app_customer.include_router(ticket.route_customer)


# ------------------------------------------------------
# Ticket routers
# ------------------------------------------------------
app_ticket.include_router(ticket.route_ticket)
