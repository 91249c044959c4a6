from fastapi import Request

LOCALHOST = "127.0.0.1"


def get_client_ip(request: Request) -> str:
    """
    Caller IP for guest quotas and throttling.
    Behind the Vercel/Render proxy the first x-forwarded-for hop is the client.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return LOCALHOST
