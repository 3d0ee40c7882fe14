from dataclasses import dataclass


@dataclass(frozen=True)
class EndpointConfig:
    base_url: str
    heating_path: str = "/heating"
    cooling_path: str = "/cooling"

    def url_for(self, path: str) -> str:
        if not path:
            raise ValueError("path is required")
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")

    def heating_url(self) -> str:
        return self.url_for(self.heating_path)

    def cooling_url(self) -> str:
        return self.url_for(self.cooling_path)
