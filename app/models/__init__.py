from app.models.user import User, InstructorProfile, UserRole, SubscriptionTier
from app.models.payment import SubscriptionPlan, Subscription, Payment
from app.models.payment import PaymentStatus, SubscriptionStatus, BillingInterval
from app.models.content import Program, ProgramSession, YogaClass, Pose
from app.models.content import VideoProgress, PlannerEntry, Challenge, ChallengeEnrollment
from app.models.dashboard import DashboardWidget, UserDashboardWidget, WidgetType

__all__ = [
    "User", "InstructorProfile", "UserRole", "SubscriptionTier",
    "SubscriptionPlan", "Subscription", "Payment", "PaymentStatus",
    "SubscriptionStatus", "BillingInterval", "Program", "ProgramSession",
    "YogaClass", "Pose", "VideoProgress", "PlannerEntry", "Challenge",
    "ChallengeEnrollment", "DashboardWidget", "UserDashboardWidget", "WidgetType"
]
