"""
LeaveFlow - leave management backend with rule-based automation
"""
