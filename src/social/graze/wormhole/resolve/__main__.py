from typing import List
import argparse
import aiohttp
import asyncio
import json
import logging

from social.graze.wormhole.app.config import Settings
from social.graze.wormhole.app.orchestrator import create_wormhole
from social.graze.wormhole.resolve.errors import WormholeException
from social.graze.wormhole.resolve.parse import parse_input

logger = logging.getLogger(__name__)


async def realMain() -> None:
    parser = argparse.ArgumentParser(
        prog="wormhole-resolve",
        description="Resolve handles, DIDs, AT URIs and service links",
    )
    parser.add_argument("input", nargs="+", help="The input(s) to resolve.")
    parser.add_argument(
        "--resolver-hostname",
        default=None,
        help="The host serving com.atproto.identity.resolveHandle.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Only parse and canonicalize, without network lookups.",
    )
    parser.add_argument(
        "--did-web-fallback",
        action="store_true",
        help="Use the domain of a did:web DID when its document cannot be read.",
    )
    parser.add_argument(
        "--destinations",
        action="store_true",
        help="Include the link to each known service.",
    )

    args = vars(parser.parse_args())

    inputs: List[str] = args.get("input", [])

    overrides = {"degrade_on_resolver_error": False}
    if args.get("resolver_hostname"):
        overrides["resolver_hostname"] = args["resolver_hostname"]
    if args.get("did_web_fallback"):
        overrides["did_web_fallback"] = True
    settings = Settings().model_copy(update=overrides)  # type: ignore

    async with aiohttp.ClientSession() as session:
        wormhole = create_wormhole(settings, session)
        for raw in inputs:
            try:
                if args.get("offline"):
                    record = parse_input(raw)
                else:
                    record = await wormhole.resolve_input(raw)
            except WormholeException:
                logging.exception("Exception resolving input %s", raw)
                continue

            if record is None:
                print(json.dumps({"input": raw, "record": None}))
                continue

            output = {"input": raw, "record": record.model_dump(mode="json")}
            if args.get("destinations"):
                output["destinations"] = [
                    destination.model_dump(mode="json")
                    for destination in wormhole.destinations(record)
                ]
            print(json.dumps(output))


def main() -> None:
    logging.basicConfig()
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
