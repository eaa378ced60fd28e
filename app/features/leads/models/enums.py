import enum


class CustomerCategory(str, enum.Enum):
    EXISTING = "existing"
    POTENTIAL = "potential"


class LeadStatus(str, enum.Enum):
    NEW = "new"
    FOLLOWUP = "followup"
    QUALIFIED = "qualified"
    HOT = "hot"
    CONVERTED = "converted"
    LOST = "lost"


class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    TWITTER = "twitter"
    CAMPAIGN = "campaign"
    INSTAGRAM = "instagram"
    GENERATED_BY = "generated_by"
    ON_FIELD = "on_field"
    OTHER = "other"


class FollowupDateFilter(str, enum.Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    FUTURE = "future"
