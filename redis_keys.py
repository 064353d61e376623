REDIS_USERS_KEY = "users" # hash - username -> JSON user record

# **Example `users` hash field**
# - field = `{username}`
# - value = `{"username": ..., "password": <bcrypt hash>, "profile_image": <filename or null>}`
