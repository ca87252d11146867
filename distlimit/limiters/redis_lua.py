"""Redis Lua scripts for the rate limiting strategies.

Each script is one read-modify-write sequence executed atomically by Redis,
so concurrent callers on the same key can never interleave between the read
and the write. Token counts are returned and stored as ``%.17g`` strings:
Redis truncates Lua numbers to integers in replies, and ``tostring`` keeps
only 14 significant digits.
"""

# Fixed window counter
# KEYS[1]: counter key (embeds the window index)
# ARGV[1]: max requests, ARGV[2]: window length in ms
# Returns {allowed, limit - count, count}
FIXED_WINDOW_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])

    local count = redis.call('INCR', key)
    if count == 1 then
        redis.call('PEXPIRE', key, window)
    end

    if count <= limit then
        return {1, limit - count, count}
    end
    return {0, limit - count, count}
"""

# Token bucket, fixed window: a fresh full bucket per aligned window
# KEYS[1]: bucket key (embeds the window start)
# ARGV[1]: capacity, ARGV[2]: window length in ms, ARGV[3]: cost,
# ARGV[4]: aligned window start in ms
# Returns {allowed, tokens, reset_ms}
TOKEN_BUCKET_FIXED_SCRIPT = """
    local function num(n)
        return string.format('%.17g', n)
    end

    local key = KEYS[1]
    local capacity = tonumber(ARGV[1])
    local window_size = tonumber(ARGV[2])
    local cost = tonumber(ARGV[3])

    local bucket = redis.call('HMGET', key, 'tokens', 'windowStart')
    local tokens = capacity
    local window_start = tonumber(ARGV[4])
    if bucket[1] then
        tokens = tonumber(bucket[1])
    end
    if bucket[2] then
        window_start = tonumber(bucket[2])
    end

    if tokens < cost then
        return {0, num(tokens), window_start + window_size}
    end

    tokens = tokens - cost
    redis.call('HSET', key, 'tokens', num(tokens), 'windowStart', num(window_start))
    redis.call('PEXPIRE', key, window_size)

    return {1, num(tokens), window_start + window_size}
"""

# Token bucket, sliding window: continuous refill since the last commit
# KEYS[1]: bucket key
# ARGV[1]: now in ms, ARGV[2]: capacity, ARGV[3]: interval in ms,
# ARGV[4]: tokens refilled per interval, ARGV[5]: cost
# Returns {allowed, tokens, reset_ms}
# A rejection writes nothing, so the computed refill is not persisted.
TOKEN_BUCKET_SLIDING_SCRIPT = """
    local function num(n)
        return string.format('%.17g', n)
    end

    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local capacity = tonumber(ARGV[2])
    local interval = tonumber(ARGV[3])
    local refill_rate = tonumber(ARGV[4])
    local cost = tonumber(ARGV[5])

    local bucket = redis.call('HMGET', key, 'tokens', 'lastRefill')
    local tokens
    local last_refill
    if bucket[1] and bucket[2] then
        tokens = tonumber(bucket[1])
        last_refill = tonumber(bucket[2])
    else
        tokens = capacity
        last_refill = now
    end

    -- Clock skew between callers must not drain the bucket
    local elapsed = math.max(0, now - last_refill)
    local added = math.floor(elapsed * refill_rate / interval)
    tokens = math.min(capacity, tokens + added)

    if tokens < cost then
        return {0, num(tokens), last_refill + interval}
    end

    tokens = tokens - cost
    redis.call('HSET', key, 'tokens', num(tokens), 'lastRefill', num(now))
    redis.call('PEXPIRE', key, interval)

    return {1, num(tokens), now + interval}
"""

# Concurrency slot acquire
# KEYS[1]: slot counter key
# ARGV[1]: max concurrent requests, ARGV[2]: slot timeout in ms
# Returns {allowed, remaining, current_count}
CONCURRENCY_ACQUIRE_SCRIPT = """
    local key = KEYS[1]
    local max_concurrent = tonumber(ARGV[1])
    local timeout = tonumber(ARGV[2])

    local count = redis.call('GET', key)
    if not count then
        if max_concurrent < 1 then
            return {0, 0, 0}
        end
        redis.call('SET', key, '1', 'PX', timeout)
        return {1, max_concurrent - 1, 1}
    end

    count = tonumber(count)
    if count >= max_concurrent then
        return {0, 0, count}
    end

    local new_count = redis.call('INCR', key)
    redis.call('PEXPIRE', key, timeout)

    return {1, max_concurrent - new_count, new_count}
"""

# Concurrency slot release
# KEYS[1]: slot counter key
# Returns the remaining held slot count; the TTL is left untouched.
CONCURRENCY_RELEASE_SCRIPT = """
    local key = KEYS[1]
    local count = redis.call('GET', key)

    if not count then
        return 0
    end

    count = tonumber(count)
    if count <= 1 then
        redis.call('DEL', key)
        return 0
    end

    return redis.call('DECR', key)
"""
