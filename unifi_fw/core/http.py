import requests
from requests.adapters import HTTPAdapter, Retry

UA = "unifi-fw-cache/1.0"
RETRIES = 3   # bounded; the downloader never loops on its own

def make_session() -> requests.Session:
    retry = Retry(
        total=RETRIES, backoff_factor=0.6,
        status_forcelist=(429,500,502,503,504),
        allowed_methods=frozenset(["GET","HEAD"]),
        raise_on_status=False,
    )
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    for scheme in ("http://", "https://"):
        s.mount(scheme, adapter)
    s.headers["User-Agent"] = UA
    return s

SESSION = make_session()
