"""Closed enumerations of permission entity types and actions"""
import enum


class PermissionAction(str, enum.Enum):
    VIEW = "VIEW"
    ADD = "ADD"
    EDIT = "EDIT"
    DELETE = "DELETE"
    EXPORT = "EXPORT"


class EntityType(str, enum.Enum):
    """Dashboard sections a role can be granted actions on.

    Nested sections repeat their parent prefix (``SETTLEMENTS_SHEET`` lives
    under ``SETTLEMENTS``); a grant on the parent never implies the child.
    """

    DASHBOARD = "DASHBOARD"

    USER_MANAGEMENT = "USER_MANAGEMENT"
    USERS_SNAP_USERS = "USERS_SNAP_USERS"
    USERS_KYC_APPROVAL = "USERS_KYC_APPROVAL"

    PRODUCTS = "PRODUCTS"
    PRODUCTS_CATEGORIES = "PRODUCTS_CATEGORIES"
    ORDERS = "ORDERS"

    SETTLEMENTS = "SETTLEMENTS"
    SETTLEMENTS_REQUESTS = "SETTLEMENTS_REQUESTS"
    SETTLEMENTS_SHEET = "SETTLEMENTS_SHEET"
    SETTLEMENTS_CUMULATIVE_ENTRIES = "SETTLEMENTS_CUMULATIVE_ENTRIES"

    JOURNALS = "JOURNALS"
    JOURNALS_STRIPE_PAYMENT_REPORT = "JOURNALS_STRIPE_PAYMENT_REPORT"
    JOURNALS_SNAP_FEE_REPORT = "JOURNALS_SNAP_FEE_REPORT"
    JOURNALS_AUDIT_REPORT = "JOURNALS_AUDIT_REPORT"

    SYSTEM_CONFIG = "SYSTEM_CONFIG"
    SYSTEM_CONFIG_ROLES = "SYSTEM_CONFIG_ROLES"
    SYSTEM_CONFIG_OPERATOR_ENTITY = "SYSTEM_CONFIG_OPERATOR_ENTITY"
    SYSTEM_CONFIG_SYSTEM_OPERATOR = "SYSTEM_CONFIG_SYSTEM_OPERATOR"
    SYSTEM_CONFIG_SETTLEMENT_GROUP = "SYSTEM_CONFIG_SETTLEMENT_GROUP"
    SYSTEM_CONFIG_PAYMENT_GATEWAYS = "SYSTEM_CONFIG_PAYMENT_GATEWAYS"

    SNAP_RIDE = "SNAP_RIDE"
    SNAP_RIDE_RIDER_APPLICATIONS = "SNAP_RIDE_RIDER_APPLICATIONS"
    SNAP_RIDE_DRIVER_MANAGEMENT = "SNAP_RIDE_DRIVER_MANAGEMENT"
    SNAP_RIDE_RIDE_MANAGEMENT = "SNAP_RIDE_RIDE_MANAGEMENT"
    SNAP_RIDE_ANALYTICS = "SNAP_RIDE_ANALYTICS"
    RIDE_SERVICE = "RIDE_SERVICE"
    RIDE_SERVICE_TIERS = "RIDE_SERVICE_TIERS"

    ANALYTICS = "ANALYTICS"
    ANALYTICS_REVENUE = "ANALYTICS_REVENUE"

    AUTHENTICATION = "AUTHENTICATION"
    AUTHENTICATION_DEVICE_AUTHENTICATION = "AUTHENTICATION_DEVICE_AUTHENTICATION"


# Dashboard menu layout: entity type -> (label, parent menu). Top-level menus have no parent.
ENTITY_MENU = {
    EntityType.DASHBOARD: ("Dashboard", None),
    EntityType.USER_MANAGEMENT: ("Users", None),
    EntityType.USERS_SNAP_USERS: ("SNAP Users", EntityType.USER_MANAGEMENT),
    EntityType.USERS_KYC_APPROVAL: ("KYC Approval", EntityType.USER_MANAGEMENT),
    EntityType.PRODUCTS: ("Products", None),
    EntityType.PRODUCTS_CATEGORIES: ("Categories", EntityType.PRODUCTS),
    EntityType.ORDERS: ("Orders", None),
    EntityType.SETTLEMENTS: ("Settlements", None),
    EntityType.SETTLEMENTS_REQUESTS: ("Settlement Request", EntityType.SETTLEMENTS),
    EntityType.SETTLEMENTS_SHEET: ("Settlement Sheet", EntityType.SETTLEMENTS),
    EntityType.SETTLEMENTS_CUMULATIVE_ENTRIES: ("Cumulative Entries", EntityType.SETTLEMENTS),
    EntityType.JOURNALS: ("Journals", None),
    EntityType.JOURNALS_STRIPE_PAYMENT_REPORT: ("Stripe Payment Report", EntityType.JOURNALS),
    EntityType.JOURNALS_SNAP_FEE_REPORT: ("Snap Fee Report", EntityType.JOURNALS),
    EntityType.JOURNALS_AUDIT_REPORT: ("Transaction Logs", EntityType.JOURNALS),
    EntityType.SYSTEM_CONFIG: ("System Configuration", None),
    EntityType.SYSTEM_CONFIG_ROLES: ("Roles", EntityType.SYSTEM_CONFIG),
    EntityType.SYSTEM_CONFIG_OPERATOR_ENTITY: ("User Container", EntityType.SYSTEM_CONFIG),
    EntityType.SYSTEM_CONFIG_SYSTEM_OPERATOR: ("Admin Container", EntityType.SYSTEM_CONFIG),
    EntityType.SYSTEM_CONFIG_SETTLEMENT_GROUP: ("Settlement Group", EntityType.SYSTEM_CONFIG),
    EntityType.SYSTEM_CONFIG_PAYMENT_GATEWAYS: ("Payment Gateways", EntityType.SYSTEM_CONFIG),
    EntityType.SNAP_RIDE: ("SNAP Ride", None),
    EntityType.SNAP_RIDE_RIDER_APPLICATIONS: ("Ride Applications", EntityType.SNAP_RIDE),
    EntityType.SNAP_RIDE_DRIVER_MANAGEMENT: ("Driver Management", EntityType.SNAP_RIDE),
    EntityType.SNAP_RIDE_RIDE_MANAGEMENT: ("Ride Journal", EntityType.SNAP_RIDE),
    EntityType.SNAP_RIDE_ANALYTICS: ("Analytics", EntityType.SNAP_RIDE),
    EntityType.RIDE_SERVICE: ("Ride Service", EntityType.SNAP_RIDE),
    EntityType.RIDE_SERVICE_TIERS: ("Ride Service Tiers", EntityType.SNAP_RIDE),
    EntityType.ANALYTICS: ("Analytics", None),
    EntityType.ANALYTICS_REVENUE: ("Revenue Analysis", EntityType.ANALYTICS),
    EntityType.AUTHENTICATION: ("Authentication", None),
    EntityType.AUTHENTICATION_DEVICE_AUTHENTICATION: ("Device Authentication", EntityType.AUTHENTICATION),
}
