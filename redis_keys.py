KOVERS_STORE_KEY = "kovers:store" # whole store document, JSON string

# **Example `kovers:store` value**
# - `users` = list of user records
# - `sessions` = list of {token, userId, createdAt}
# - `rooms` = list of room records (group and dm)
# - `messages` = list of messages, insertion order
# - `calls` = list of calls, active and ended
