"""Greeting services registered by the mesh sample application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

logger = logging.getLogger(__name__)


@dataclass
class GreetingRequest:
    """Who to greet."""

    JAVA_CLASS: ClassVar[str] = "com.dubbo.demo.GreetingRequest"

    name: str = ""

    def java_class_name(self) -> str:
        return self.JAVA_CLASS


@dataclass
class GreetingResponse:
    """The greeting sent back."""

    JAVA_CLASS: ClassVar[str] = "com.dubbo.demo.GreetingResponse"

    greeting: str = ""

    def java_class_name(self) -> str:
        return self.JAVA_CLASS


class GreetingService:
    """Answers a greeting request with a greeting."""

    def greeting(self, request: GreetingRequest) -> GreetingResponse:
        return GreetingResponse(greeting="Hello " + request.name + ", From Dubbo-go service")

    def reference(self) -> str:
        return "GreetingService"


@dataclass
class HelloRequest:
    name: str = ""


@dataclass
class HelloUser:
    name: str = ""
    id: str = ""
    age: int = 0


class GreeterServer:
    """The greeter exposed over the triple protocol."""

    def say_hello(self, request: HelloRequest) -> HelloUser:
        logger.info("Dubbo-go GreeterProvider get user name = %s", request.name)
        return HelloUser(name="Hello " + request.name, id="12345", age=21)