"""Browser runtime: safe actions, login, form workflows, row driver."""
