"""
Homebuilding Production Scheduler
Blueprint registry: health_bp, home_schedule_bp.
"""
