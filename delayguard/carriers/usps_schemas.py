"""
USPS Web Tools TrackV2 (TrackFieldRequest) response schemas.

USPS answers in XML. xml_to_dict() turns the document into nested dicts
keyed by element tag, and the models below validate that structure.
"""

from typing import Any, Optional, Union
from xml.etree import ElementTree

from pydantic import BaseModel, ConfigDict, Field, field_validator


def element_to_value(element: ElementTree.Element) -> Any:
    """
    Convert an element to a dict (child elements), str (text) or None.

    Repeated child tags become lists and attributes are kept under "@name".
    """
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        return text or None

    value: dict[str, Any] = {f"@{key}": attr for key, attr in element.attrib.items()}
    for child in children:
        converted = element_to_value(child)
        if child.tag not in value:
            value[child.tag] = converted
        elif isinstance(value[child.tag], list):
            value[child.tag].append(converted)
        else:
            value[child.tag] = [value[child.tag], converted]
    return value


def xml_to_dict(body: str | bytes) -> dict[str, Any]:
    """
    Parse an XML document into {root_tag: value}.

    Raises:
        ElementTree.ParseError: If the body is not well-formed XML
    """
    root = ElementTree.fromstring(body)
    return {root.tag: element_to_value(root)}


def _as_list(value: Any) -> Any:
    if value is None or isinstance(value, list):
        return value
    return [value]


class UspsPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class UspsTrackEvent(UspsPayload):
    """TrackSummary or TrackDetail entry."""

    event_time: Optional[str] = Field(default=None, alias="EventTime")
    event_date: Optional[str] = Field(default=None, alias="EventDate")
    event: Optional[str] = Field(default=None, alias="Event")
    event_city: Optional[str] = Field(default=None, alias="EventCity")
    event_state: Optional[str] = Field(default=None, alias="EventState")
    event_zip_code: Optional[str] = Field(default=None, alias="EventZIPCode")
    event_country: Optional[str] = Field(default=None, alias="EventCountry")
    event_code: Optional[str] = Field(default=None, alias="EventCode")
    firm_name: Optional[str] = Field(default=None, alias="FirmName")


class UspsError(UspsPayload):
    number: Optional[str] = Field(default=None, alias="Number")
    description: Optional[str] = Field(default=None, alias="Description")
    source: Optional[str] = Field(default=None, alias="Source")


class UspsTrackInfo(UspsPayload):
    id: Optional[str] = Field(default=None, alias="@ID")
    track_summary: Optional[Union[UspsTrackEvent, str]] = Field(
        default=None, alias="TrackSummary"
    )
    track_detail: Optional[list[UspsTrackEvent]] = Field(
        default=None, alias="TrackDetail"
    )
    status: Optional[str] = Field(default=None, alias="Status")
    status_category: Optional[str] = Field(default=None, alias="StatusCategory")
    status_summary: Optional[str] = Field(default=None, alias="StatusSummary")
    mail_class: Optional[str] = Field(default=None, alias="Class")
    expected_delivery_date: Optional[str] = Field(
        default=None, alias="ExpectedDeliveryDate"
    )
    expected_delivery_time: Optional[str] = Field(
        default=None, alias="ExpectedDeliveryTime"
    )
    guaranteed_delivery_date: Optional[str] = Field(
        default=None, alias="GuaranteedDeliveryDate"
    )
    delivery_notification_date: Optional[str] = Field(
        default=None, alias="DeliveryNotificationDate"
    )
    error: Optional[UspsError] = Field(default=None, alias="Error")

    @field_validator("track_detail", mode="before")
    @classmethod
    def _single_detail(cls, value: Any) -> Any:
        return _as_list(value)


class UspsTrackResponse(UspsPayload):
    track_info: Optional[list[UspsTrackInfo]] = Field(default=None, alias="TrackInfo")

    @field_validator("track_info", mode="before")
    @classmethod
    def _single_info(cls, value: Any) -> Any:
        return _as_list(value)


class UspsTrackingResponse(UspsPayload):
    """Either <TrackResponse> or a top-level <Error> document."""

    track_response: Optional[UspsTrackResponse] = Field(
        default=None, alias="TrackResponse"
    )
    error: Optional[UspsError] = Field(default=None, alias="Error")
