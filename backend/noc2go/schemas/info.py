from pydantic import BaseModel


class NetInterface(BaseModel):
    name: str
    mac: str = ""
    addrs: list[str] = []


class SystemInfo(BaseModel):
    hostname: str
    os: str
    kernel: str
    uptime: str
    interfaces: list[NetInterface]
    routes: list[str]
    dns_servers: list[str]
    proxies: list[str]
