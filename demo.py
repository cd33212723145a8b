import json
import requests

BASE = "http://localhost:3000"


def trade(ticker, shares, price, side):
    resp = requests.post(
        f"{BASE}/holdings",
        json={"stock_ticker": ticker, "shares": shares, "price": price, "trade_type": side},
    )
    print(resp.status_code, json.dumps(resp.json(), indent=2, ensure_ascii=False))
    return resp


# buy twice, check returns, then sell everything
trade("TCS", 10, 3000, "buy")
trade("TCS", 5, 3600, "buy")
print(json.dumps(requests.get(f"{BASE}/holdings").json(), indent=2))
print(json.dumps(requests.get(f"{BASE}/holdings/returns").json(), indent=2))
trade("TCS", 20, 3500, "sell")  # rejected: only 15 held
trade("TCS", 15, 3500, "sell")
print(json.dumps(requests.get(f"{BASE}/holdings").json(), indent=2))
