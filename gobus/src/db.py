from secrets import token_hex
from sqlalchemy import (
    ARRAY,
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from gobus.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from gobus.src.enums import (
    PlatformType,
    TicketStatus,
    TicketType,
)


# Global DBMS variables
dbURL = URL.create(
    drivername=PSQL_DB_DRIVER,
    username=PSQL_DB_USERNAME,
    password=PSQL_DB_PASSWORD,
    host=PSQL_DB_HOST,
    port=int(PSQL_DB_PORT),
    database=PSQL_DB_NAME,
)
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# PostgreSQL column types with a portable fallback for SQLite
IntegerArray = ARRAY(Integer).with_variant(JSON(), "sqlite")
JSONDocument = JSONB().with_variant(JSON(), "sqlite")


# ----------------------------------- Identity DB Models --------------------------------------#
class Profile(ORMbase):
    """
    Represents the base identity of a customer or a fleet owner.

    Drivers are not profiles; they are provisioned by owners as driver slots
    and authenticate with system-generated credentials.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the profile.

        role (Integer):
            Role of the profile, mapped from the `Role` enum.
            Checked only when a token is issued; later requests carry the
            role through the type of the token.

        email_id (String(256)):
            Login identifier. Stored lower-cased.
            Must be unique and not null.

        password (TEXT):
            Argon2 hash of the password. Plaintext is never stored here.

        display_name (TEXT):
            Name shown in the UI. Maximum 64 characters long.

        phone_number (TEXT):
            Optional contact number. Maximum 32 characters long.

        updated_on (DateTime):
            Timestamp automatically updated whenever the profile is modified.

        created_on (DateTime):
            Timestamp of when the profile was created.
    """

    __tablename__ = "profile"

    id = Column(Integer, primary_key=True)
    role = Column(Integer, nullable=False)
    email_id = Column(String(256), nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    display_name = Column(TEXT)
    phone_number = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OwnerProfile(ORMbase):
    """
    Represents the fleet-operating company of an owner profile.

    Shares its primary key with `profile.id`. A missing row is provisioned
    on the first dashboard access of an owner.

    Columns:
        id (Integer):
            Primary key and foreign key referencing `profile.id`.
            Cascades on delete.

        company_name (TEXT):
            Name of the fleet company. Must not be null.

        email_id (TEXT):
            Contact email of the company.

        phone_number (TEXT):
            Contact phone number of the company.

        address (TEXT):
            Postal address of the company.

        notification_preferences (JSONB):
            Flags `email_alerts`, `booking_notifications` and
            `bus_status_updates`.
    """

    __tablename__ = "owner_profile"

    id = Column(Integer, ForeignKey("profile.id", ondelete="CASCADE"), primary_key=True)
    company_name = Column(TEXT, nullable=False)
    email_id = Column(TEXT)
    phone_number = Column(TEXT)
    address = Column(TEXT)
    notification_preferences = Column(JSONDocument)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OwnerToken(ORMbase):
    """
    Represents an authentication token issued to an owner.

    Columns:
        id (Integer):
            Primary key.

        owner_id (Integer):
            Foreign key referencing `profile.id` of an OWNER profile.
            Cascades on delete.

        access_token (String(64)):
            Unique 64-character hexadecimal token generated with `token_hex(32)`.

        expires_in (Integer):
            Token validity in seconds.

        expires_at (DateTime):
            Date and time after which the token becomes invalid.

        platform_type (Integer):
            Client platform, mapped from `PlatformType`.

        client_details (TEXT):
            Optional description of the client. Maximum 1024 characters long.
    """

    __tablename__ = "owner_token"

    id = Column(Integer, primary_key=True)
    owner_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class CustomerToken(ORMbase):
    """
    Represents an authentication token issued to a customer.
    Same structure as `OwnerToken`, keyed by `customer_id`.
    """

    __tablename__ = "customer_token"

    id = Column(Integer, primary_key=True)
    customer_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DriverToken(ORMbase):
    """
    Represents an authentication token issued to a driver slot.

    Columns:
        driver_id (Integer):
            Foreign key referencing `driver_profile.id`.
            Cascades on delete, so deleting or resetting a slot logs the driver out.

        owner_id (Integer):
            Owner of the driver slot, copied at issue time for event logging.
    """

    __tablename__ = "driver_token"

    id = Column(Integer, primary_key=True)
    driver_id = Column(
        Integer,
        ForeignKey("driver_profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id = Column(
        Integer, ForeignKey("profile.id", ondelete="CASCADE"), nullable=False
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Fleet DB Models -----------------------------------------#
class BankAccount(ORMbase):
    """
    Represents a revenue-collection bank account of an owner.

    Notes:
        - At most one account per owner has `is_default` set.
          Every write that sets the flag clears it on the owner's other accounts.
        - Buses referring to a deleted account fall back to no account.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the bank account.

        owner_id (Integer):
            Foreign key referencing `profile.id`. Cascades on delete.

        account_name (TEXT):
            Name of the account holder. Maximum 64 characters long.

        account_number (TEXT):
            The bank account number. Maximum 32 characters long.

        ifsc_code (String(11)):
            Indian Financial System Code of the branch.
            Exactly 11 characters, stored upper-cased.

        bank_name (TEXT):
            Name of the bank. Maximum 64 characters long.

        is_default (Boolean):
            Whether this account is the owner's default account.
    """

    __tablename__ = "bank_account"

    id = Column(Integer, primary_key=True)
    owner_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_name = Column(TEXT, nullable=False)
    account_number = Column(TEXT, nullable=False)
    ifsc_code = Column(String(11), nullable=False)
    bank_name = Column(TEXT, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Bus(ORMbase):
    """
    Represents a bus registered by an owner.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the bus.

        owner_id (Integer):
            Foreign key referencing the owner profile. Cascades on delete.

        registration_number (String(16)):
            Vehicle registration number, stored upper-cased.
            Unique per owner. Its last four digits build driver login IDs.

        ref_number (String(16)):
            System generated reference printed on the bus and its tickets.
            Globally unique. Customers look buses up with it.

        route_from (TEXT), route_to (TEXT):
            End points of the route served by the bus.

        total_seats (Integer):
            Seating capacity.

        current_passengers (Integer):
            Passengers currently on board.

        current_stop (TEXT):
            Name of the last reported stop.

        bank_account_id (Integer):
            Foreign key referencing `bank_account.id`.
            Set to NULL when the account is removed.
    """

    __tablename__ = "bus"
    __table_args__ = (UniqueConstraint("registration_number", "owner_id"),)

    id = Column(Integer, primary_key=True)
    owner_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    registration_number = Column(String(16), nullable=False, index=True)
    ref_number = Column(String(16), nullable=False, unique=True)
    route_from = Column(TEXT, nullable=False)
    route_to = Column(TEXT, nullable=False)
    total_seats = Column(Integer, nullable=False, default=40)
    current_passengers = Column(Integer, nullable=False, default=0)
    current_stop = Column(TEXT)
    bank_account_id = Column(
        Integer, ForeignKey("bank_account.id", ondelete="SET NULL")
    )
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Trip(ORMbase):
    """
    Represents a scheduled daily run of a bus.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the trip.

        bus_id (Integer):
            Foreign key referencing `bus.id`. Cascades on delete.

        trip_number (Integer):
            Position of the trip among the trips of its bus.
            Assigned as the highest existing number plus one, starting at 1.
            Numbers are never compacted after a delete.
            Unique per bus.

        start_time (Time):
            Time of day when the trip starts.

        end_time (Time):
            Optional time of day when the trip ends.

        days_of_week (ARRAY(Integer)):
            Non-empty list of `Day` values on which the trip runs.

        is_active (Boolean):
            Whether the trip is currently operated.
    """

    __tablename__ = "trip"
    __table_args__ = (UniqueConstraint("bus_id", "trip_number"),)

    id = Column(Integer, primary_key=True)
    bus_id = Column(
        Integer, ForeignKey("bus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trip_number = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time)
    days_of_week = Column(IntegerArray, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class TripStop(ORMbase):
    """
    Represents an ordered waypoint of a trip.

    Columns:
        trip_id (Integer):
            Foreign key referencing `trip.id`. Cascades on delete.

        name (TEXT):
            Name of the stop.

        arrival_time (Time):
            Expected arrival time at the stop.

        sequence (Integer):
            1-based position of the stop within its trip.
            Contiguous within a trip; deletes renumber the remaining stops.
    """

    __tablename__ = "trip_stop"

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(TEXT, nullable=False)
    arrival_time = Column(Time, nullable=False)
    sequence = Column(Integer, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DriverProfile(ORMbase):
    """
    Represents a driver slot provisioned by an owner.

    Columns:
        owner_id (Integer):
            Foreign key referencing the owner profile. Cascades on delete.

        bus_id (Integer):
            Bus the driver is assigned to. Nullable, unassigned slots are allowed.
            Set to NULL when the bus is removed.

        username (String(32)):
            System generated login ID, `D<slot number><registration suffix>`.
            Must be unique.

        slot_name (String(32)):
            Human label, `Driver <N>`. Numbering continues from the most
            recently created slot, so retired numbers are not reused.

        password_hash (TEXT):
            Base64 encoding of the 4-digit password. Reversible, not a hash.
            Legacy rows may hold the plaintext password.

        name (TEXT), phone_number (TEXT):
            Optional details of the person driving under this slot.

        remarks (TEXT):
            Free text notes of the owner.
    """

    __tablename__ = "driver_profile"

    id = Column(Integer, primary_key=True)
    owner_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bus_id = Column(Integer, ForeignKey("bus.id", ondelete="SET NULL"))
    username = Column(String(32), nullable=False, unique=True)
    slot_name = Column(String(32), nullable=False)
    password_hash = Column(TEXT)
    name = Column(TEXT)
    phone_number = Column(TEXT)
    remarks = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Ticket(ORMbase):
    """
    Represents a ticket booked by a customer.

    Columns:
        customer_id (Integer):
            Foreign key referencing the customer profile. Cascades on delete.

        bus_id (Integer):
            Foreign key referencing `bus.id`. Cascades on delete.

        trip_id (Integer):
            Optional trip the ticket was booked for. Set to NULL on trip delete.

        bus_code (TEXT):
            Reference number of the bus at booking time.

        route_name (TEXT):
            "<route_from> → <route_to>" of the bus at booking time.

        from_stop (TEXT), to_stop (TEXT):
            Boarding and alighting stops.

        passengers (Integer):
            Number of passengers covered by the ticket.

        amount (Numeric(10, 2)):
            Fare paid for the ticket.

        ticket_type (Integer):
            Mapped from `TicketType`.

        status (Integer):
            Mapped from `TicketStatus`. ACTIVE moves to USED on validation
            or to EXPIRED on cancellation. USED and EXPIRED are terminal.

        qr_code (String(64)):
            Token encoded in the ticket QR, `GOBUS-<uuid4>`. Unique.

        validated_on (DateTime):
            Timestamp of the validation by a driver.
    """

    __tablename__ = "ticket"

    id = Column(Integer, primary_key=True)
    customer_id = Column(
        Integer,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bus_id = Column(
        Integer, ForeignKey("bus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trip_id = Column(Integer, ForeignKey("trip.id", ondelete="SET NULL"))
    bus_code = Column(TEXT, nullable=False)
    route_name = Column(TEXT, nullable=False)
    from_stop = Column(TEXT, nullable=False)
    to_stop = Column(TEXT, nullable=False)
    passengers = Column(Integer, nullable=False, default=1)
    amount = Column(Numeric(10, 2), nullable=False)
    ticket_type = Column(Integer, nullable=False, default=TicketType.NORMAL)
    status = Column(Integer, nullable=False, default=TicketStatus.ACTIVE)
    qr_code = Column(String(64), nullable=False, unique=True)
    validated_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
