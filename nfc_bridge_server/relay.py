from __future__ import annotations

import hmac
import logging
import threading
from typing import Any, Mapping, Optional

from flask import Flask, jsonify, request
from flask_socketio import ConnectionRefusedError, SocketIO, emit

from .broadcaster import DEFAULT_CHANNEL, STREAM_CHANNEL, EventBroadcaster
from .models import EventSource, GatewaySighting, NormalizedEvent
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

GATEWAY_CHANNEL = "/gw"
TOKEN_HEADER = "X-Gateway-Token"


def presented_token(auth: Any, query: Mapping[str, Any], headers: Mapping[str, Any]) -> Optional[str]:
    """按 auth.token -> ?token= -> X-Gateway-Token 的顺序取第一个出现的令牌"""
    if isinstance(auth, Mapping) and auth.get("token"):
        return str(auth["token"])
    if query.get("token"):
        return str(query["token"])
    if headers.get(TOKEN_HEADER):
        return str(headers[TOKEN_HEADER])
    return None


def token_matches(token: Optional[str], secret: Optional[str]) -> bool:
    # 未配置密钥时拒绝所有网关
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


class GatewayRelay:
    """
    Socket.IO 中继：
    - `/`       : 本地与网关的 `nfc`、BLE 原始 `ble` 事件
    - `/stream` : 任意订阅者，连接即收到 `hello`，并接收网关 `uid` 原样转发
    - `/gw`     : 需共享密钥认证的网关，上报 `uid`
    """

    def __init__(
        self,
        broadcaster: EventBroadcaster,
        gateway_token: Optional[str],
        limiter: Optional[RateLimiter] = None,
        cors_origins: Any = "*",
    ):
        self.broadcaster = broadcaster
        self.gateway_token = gateway_token
        self.limiter = limiter
        self.lock = threading.Lock()
        self.gateways: set = set()

        self.app = Flask(__name__)
        self.socketio = SocketIO(self.app, cors_allowed_origins=cors_origins, async_mode="threading")
        self._register_routes()
        self._register_namespaces()
        self._unsubscribe = broadcaster.subscribe(self._forward)

    # ---------- Broadcaster -> Socket.IO ----------
    def _forward(self, event: str, payload: Any, channel: str) -> None:
        self.socketio.emit(event, payload, namespace=channel or DEFAULT_CHANNEL)

    # ---------- HTTP ----------
    def _register_routes(self) -> None:
        @self.app.route("/")
        def health():
            return jsonify(ok=True, gateways=len(self.gateways))

    # ---------- Socket.IO ----------
    def _register_namespaces(self) -> None:
        sio = self.socketio

        @sio.on("connect", namespace=STREAM_CHANNEL)
        def stream_connect(auth=None):
            logger.info("browser connected %s", STREAM_CHANNEL)
            emit("hello", {"ok": True})

        @sio.on("connect", namespace=GATEWAY_CHANNEL)
        def gateway_connect(auth=None):
            token = presented_token(auth, request.args, request.headers)
            if not token_matches(token, self.gateway_token):
                logger.warning("gateway rejected from %s", request.remote_addr or "unknown")
                raise ConnectionRefusedError("unauthorized")
            with self.lock:
                self.gateways.add(request.sid)
            logger.info("gateway connected %s", GATEWAY_CHANNEL)

        @sio.on("disconnect", namespace=GATEWAY_CHANNEL)
        def gateway_disconnect(*args):
            with self.lock:
                self.gateways.discard(request.sid)
            logger.info("gateway disconnected %s", GATEWAY_CHANNEL)

        @sio.on("uid", namespace=GATEWAY_CHANNEL)
        def gateway_uid(payload=None):
            # 只处理已认证会话的消息
            if request.sid not in self.gateways:
                return
            self.handle_sighting(payload)

    def handle_sighting(self, payload: Any) -> Optional[NormalizedEvent]:
        """
        网关上报：缺少 uid 的消息静默丢弃；
        原样转发到 `/stream`，并以接收时间生成 `device=gateway` 的 `nfc` 事件
        """
        sighting = GatewaySighting.parse(payload)
        if sighting is None:
            return None
        self.broadcaster.emit_uid(sighting.payload)
        event = self.broadcaster.publish_sighting(sighting.uid, EventSource.GATEWAY, self.limiter)
        if event is not None:
            logger.info("gateway UID: %s", event.id)
        return event

    def run(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        logger.info("relay listening on %s:%s", host, port)
        self.socketio.run(self.app, host=host, port=port, allow_unsafe_werkzeug=True)

    def stop(self) -> None:
        # 服务线程由 CLI 的 sys.exit 结束，这里只断开事件转发
        self._unsubscribe()
