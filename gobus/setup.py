import argparse
from http import HTTPStatus
from typing import Optional
from requests import post, put
from datetime import time

from gobus.src import argon2
from gobus.src.enums import Day, Role
from gobus.src.constants import DEFAULT_COMPANY_NAME
from gobus.src.urls import (
    URL_AUTH,
    URL_BANK_ACCOUNT,
    URL_BANK_ACCOUNT_SET_DEFAULT,
    URL_BUS,
    URL_BUS_BANK_ACCOUNT,
    URL_DRIVERS,
    URL_TRIP,
    URL_TRIP_STOP_BULK,
)
from gobus.src.db import (
    Profile,
    OwnerProfile,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")


def initDB():
    session = sessionMaker()
    # Demo accounts share one password
    password = argon2.makePassword("password")
    owner = Profile(
        role=Role.OWNER,
        email_id="owner@gobus.in",
        password=password,
        display_name="GO BUS Travels",
        phone_number="+919496801157",
    )
    customer = Profile(
        role=Role.CUSTOMER,
        email_id="customer@gobus.in",
        password=password,
        display_name="GO BUS Rider",
    )
    session.add_all([owner, customer])
    session.flush()

    company = OwnerProfile(
        id=owner.id,
        company_name=owner.display_name or DEFAULT_COMPANY_NAME,
        email_id=owner.email_id,
        phone_number=owner.phone_number,
        address="Edava, Thiruvananthapuram, Kerala 695311",
        notification_preferences={
            "email_alerts": True,
            "booking_notifications": True,
            "bus_status_updates": False,
        },
    )
    session.add(company)
    session.commit()
    print("* Initialization completed")
    session.close()


def call(method, URL: str, header: Optional[dict], status_code: int, **kwargs):
    response = method(URL, headers=header or {}, **kwargs)
    if response.status_code != status_code:
        raise SystemExit(f"{URL} answered {response.status_code}: {response.text}")
    return response


def POST(URL: str, header: Optional[dict] = None, status_code=HTTPStatus.CREATED, **kwargs):
    return call(post, URL, header, status_code, **kwargs)


def PUT(URL: str, header: Optional[dict] = None, status_code=HTTPStatus.OK, **kwargs):
    return call(put, URL, header, status_code, **kwargs)


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/api/owner"

    # Create Owner Token
    credentials = {"email": "owner@gobus.in", "password": "password"}
    response = POST(BASE_URL + URL_AUTH, json=credentials)
    print("* Created token for owner")
    accessToken = {
        "Authorization": f"Bearer {response.json()['session']['access_token']}"
    }

    # Create Bus
    busData = {
        "registration_number": "KA01AB1234",
        "route_from": "Majestic",
        "route_to": "Electronic City",
        "total_seats": 42,
    }
    bus = POST(BASE_URL + URL_BUS, header=accessToken, json=busData)
    print("* Created bus")

    # Create Trip with stops
    tripData = {
        "bus_id": bus.json()["id"],
        "start_time": time(6, 30).isoformat(),
        "end_time": time(8, 0).isoformat(),
        "days_of_week": [
            Day.MONDAY,
            Day.TUESDAY,
            Day.WEDNESDAY,
            Day.THURSDAY,
            Day.FRIDAY,
        ],
    }
    trip = POST(BASE_URL + URL_TRIP, header=accessToken, json=tripData)
    stopData = {
        "stops": [
            {"name": "Majestic", "arrival_time": time(6, 30).isoformat()},
            {"name": "Lalbagh", "arrival_time": time(6, 55).isoformat()},
            {"name": "Silk Board", "arrival_time": time(7, 20).isoformat()},
            {"name": "Electronic City", "arrival_time": time(8, 0).isoformat()},
        ]
    }
    POST(
        BASE_URL + URL_TRIP_STOP_BULK.format(trip_id=trip.json()["id"]),
        header=accessToken,
        status_code=HTTPStatus.OK,
        json=stopData,
    )
    print("* Created trip with stops")

    # Create Driver slots
    drivers = POST(
        BASE_URL + URL_DRIVERS, header=accessToken, json={"action": 1, "count": 3}
    )
    for credential in drivers.json()["credentials"]:
        print(
            f"* Created {credential['slot_name']}: "
            f"{credential['username']} / {credential['password']}"
        )

    # Create Bank account and collect the revenue of the bus in it
    accountData = {
        "account_name": "GO BUS Travels",
        "account_number": "000123456789",
        "ifsc_code": "SBIN0001234",
        "bank_name": "State Bank of India",
    }
    account = POST(BASE_URL + URL_BANK_ACCOUNT, header=accessToken, json=accountData)
    accountId = account.json()["id"]
    PUT(
        BASE_URL + URL_BANK_ACCOUNT_SET_DEFAULT.format(account_id=accountId),
        header=accessToken,
    )
    PUT(
        BASE_URL + URL_BUS_BANK_ACCOUNT.format(bus_id=bus.json()["id"]),
        header=accessToken,
        json={"bank_account_id": accountId},
    )
    print("* Created default bank account")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
