"""Services wrapping the console's external collaborators.

Each service raises domain exceptions from ``loanstream.console.errors``,
never HTTP exceptions -- that translation is the router's responsibility.
"""
