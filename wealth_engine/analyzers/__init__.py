from .recurring_detector import detect_recurring, RecurringContribution, ContributionStatus
from .sip_matcher import match_contributions, BankTransaction, MatchReport, is_provider_transaction
from .goal_progress import calculate_goal_progress, SavingsGoal, GoalProgress
from .fire_projector import calculate_fire, FireProjection, sip_future_value, blended_return
from .returns import xirr, investment_xirr, cagr, CashFlow
